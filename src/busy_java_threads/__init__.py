"""Find the busiest threads of running java processes and print their stacks."""

__version__ = "2.4.0"

PROG = "show-busy-java-threads"
