from homepager.lifecycle import main

main()
