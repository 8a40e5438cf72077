"""Domain layer: workflow rules, validation and ports, free of HTTP and ORM details"""
