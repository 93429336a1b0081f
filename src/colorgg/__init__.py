"""
ColorGG - AI-Powered Discord Moderation Bot

ColorGG sends chat messages to an AI classifier and enforces the operator's
moderation rules, escalating the most severe violations to a human reviewer.

Core Components:

- **Classifier Client**: talks to an OpenAI-compatible endpoint and normalises
  verdicts, bulk purge reviews and chat summaries
- **Decision Engine**: turns a verdict, the configured rules and the user's
  warning count into a concrete action
- **Enforcement Executor**: warns, times out or kicks, with best-effort DMs
- **Ban Requests**: restrain, locate a reviewer, deliver approve/deny controls
  through a fallback chain and apply the reviewer's decision
- **Audit Trail**: in-memory buffer with live feed and SQLite persistence
- **Interactive Console**: live administration of rules, settings and pending bans

Usage:
    from colorgg.main import main
    main()  # Starts the bot with console interface
"""
