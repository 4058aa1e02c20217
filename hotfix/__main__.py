from hotfix.cli.app import main

main()
