"""users-mcp: capability exchange between a data host and an AI driver.

The host exposes resources, tools and prompts over user records. The
driver discovers and invokes them, and answers the host's sampling
requests with text produced by a language model.
"""

__version__ = "0.1.0"
