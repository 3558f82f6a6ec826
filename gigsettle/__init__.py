"""gigsettle - gig settlement and financial event webhooks for musicians."""
__version__ = "0.1.0"
