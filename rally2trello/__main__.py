from rally2trello.cli import main

main()
