from col_profiles.cli import main

main()
