"""
Classifier service integration for ColorGG.

- **classifier.py**: ``ClassifierClient`` sends moderation, purge and summary
  requests through ``AsyncOpenAI`` with bounded timeouts. Failures degrade to
  well-formed results and are recorded in the audit trail.

- **prompts.py**: System and user prompt builders. Rules are rendered with
  their id, name, severity, action and natural-language criterion.
"""
