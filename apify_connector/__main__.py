from apify_connector.app import main

main()
