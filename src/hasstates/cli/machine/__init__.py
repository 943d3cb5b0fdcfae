"""Commands for declarative machine definition files."""
