from starter_api.main import main

main()
