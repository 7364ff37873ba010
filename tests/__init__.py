"""Test package for the aptitude test simulator.

Core tests (question bank, set builder, session, countdown, scoring, stats,
persistence) run without pygame and drive time with a fake clock. The UI
smoke tests run headlessly using pygame's dummy video driver to avoid opening
real windows. To run these tests, execute ``pytest`` from the project root.
"""
