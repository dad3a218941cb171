from clientmcp.server import main

main()
