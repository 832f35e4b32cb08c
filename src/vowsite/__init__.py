"""vowsite - custom domain verification and provisioning for hosted wedding sites."""

__version__ = "0.1.0"
