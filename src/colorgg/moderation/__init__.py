"""
Moderation processing for ColorGG.

This package coordinates the moderation pipeline:

- **moderation_parsing.py**: Extracts the JSON object from classifier output
  and normalises verdicts and purge results.

- **warning_ledger.py**: Per-user warning counts used to soften timeouts.

- **decision_engine.py**: Maps a verdict, the rules and the warning count to
  an action. Operator rules override the model's suggestion.

- **enforcement.py**: One handler per action kind; deletes, mutes, kicks and
  notifies, never raising platform failures.

- **ban_requests.py**: Restrain, locate reviewer, deliver, resolve.

- **moderation_pipeline.py**: Per-message glue from the Discord event to enforcement.
"""
