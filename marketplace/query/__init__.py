"""
Request-driven query shaping.

``params`` turns raw query strings into a sanitized Parameter Map,
``shaper`` applies filter, sort, field selection and pagination to a
collection query, and ``operators`` holds the comparison operator tables
shared with the collection store.
"""
