"""Settings package for the bike rental backend.

`base.py` holds configuration shared by every environment. `dev.py`,
`prod.py` and `test.py` extend it with environment specific overrides.
"""
