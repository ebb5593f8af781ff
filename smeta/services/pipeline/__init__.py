"""Pipeline stages for floor-plan analysis."""
