from covercheck.cli import main

main()
