"""brew-lag: keep Homebrew formulae a fixed number of versions behind latest."""
