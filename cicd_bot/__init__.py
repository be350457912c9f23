"""CI/CD Bot: adds CI/CD configuration to GitHub repositories through pull requests."""
