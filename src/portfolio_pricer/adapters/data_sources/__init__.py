"""
Price source adapters.

- Market-data gateway (AKTools): HK/US minute history, A-share listing,
  fund listings, open-fund NAV, FX spot quotes
- CoinGecko (crypto spot prices)
- IEX Cloud (US equity quotes)
- Danjuan (fund NAV history)
"""
