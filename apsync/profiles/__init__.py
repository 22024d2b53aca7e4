"""Per-game reference tables (items, locations, levels, effect codes).

Selected once by game identity; everything downstream is profile-driven.
"""
