from qrlogin.cli import main

main()
