"""
Flow-engine side of the nodes

A node receives messages through on_input() and talks back to the runtime
only through its NodeHost: send() forwards downstream, status() updates the
status badge, error() reports to the runtime's error hook.
"""
