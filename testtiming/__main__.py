"""Run testtiming as a module: python -m testtiming."""

from testtiming.main import main

main()
