"""uptimewatch - HTTP/HTTPS uptime monitoring with SMS and email alerts."""
__version__ = "1.0.0"
