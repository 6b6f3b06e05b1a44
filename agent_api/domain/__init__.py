"""领域层模型与协议。

包含：
- models: Message / ToolCallRequest / ToolResult / ConversationState。
- conversation: ThreadContext 与 ThreadStore 抽象。
- exceptions: 业务异常类型定义。
"""
