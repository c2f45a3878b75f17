"""
Veterinary master matching.

Maps free-text disease, procedure and drug names to entries of the bundled
master CSVs using fuzzy string scoring, and evaluates the results against
gold-labeled cases (see ``vetmatch.eval``).
"""
