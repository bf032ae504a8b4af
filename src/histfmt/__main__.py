from histfmt.cli import main

main()
