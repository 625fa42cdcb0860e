"""Core components: security, remote sessions, runtime access and migration."""
