from cmdrunner_mcp.cli import main

main()
