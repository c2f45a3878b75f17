"""
Evaluation framework for master matching.

Provides tools for:
- Loading gold-labeled JSONL datasets
- Computing entity metrics (precision, recall, F1) and confirmed error rate
- Generating JSON and Markdown reports
"""
