from storefront.server import main

main()
