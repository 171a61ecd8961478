"""Agent scorecard engine: scoring, trends, persistence, caching, roll-ups and spreadsheets."""
