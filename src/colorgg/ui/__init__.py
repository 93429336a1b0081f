"""
User interface components for ColorGG.

- **console.py**: Interactive operator console built on prompt_toolkit.
- **embeds.py**: Embeds for offender notices, ban requests and summaries.
- **review_controls.py**: Approve/deny buttons attached to ban requests.
"""
