#!/usr/bin/env python3
"""
SME Tax Engine - Entry Point

Turns bank transactions into double-entry books and Nigerian tax
estimates. Classifies narrations, posts journal entries, derives draft
statements, computes PIT/CIT with VAT, WHT, CGT, TET, stamp duty and
levies, and checks statutory compliance.

Usage:
    python main.py classify "POS purchase - diesel" --amount -25000
    python main.py import --file examples/sample_bank.csv
    python main.py statement --file examples/sample_bank.csv
    python main.py tax --type freelancer --revenue 10000000 --expenses 2000000 --pension 500000
    python main.py tax --type company --file examples/sample_bank.csv --trail
    python main.py rules --prefix PIT
    python main.py compliance --turnover 30000000 --employees 6 --deadlines
"""

from sme_tax.cli import main

if __name__ == "__main__":
    main()
