from remindkit.main import main

main()
