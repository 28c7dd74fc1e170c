from portfolio_pricer.main import main

main()
