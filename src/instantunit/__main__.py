from instantunit.cli import main

main(prog_name="instantunit")
