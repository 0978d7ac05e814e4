from stockmcp.cli import main

main()
