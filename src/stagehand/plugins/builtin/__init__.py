"""Built-in provisioning modules driven by the settings file."""
