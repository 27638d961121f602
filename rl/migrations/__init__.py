"""Numbered schema migrations, applied in order by rl.migrate."""
