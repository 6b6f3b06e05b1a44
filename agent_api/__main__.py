from agent_api.api.server import main

main()
