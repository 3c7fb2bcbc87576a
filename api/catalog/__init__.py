"""
Polymorphic catalog storage: items and the records that hang off them
(variations, modifications, deliveries, controls) in one owner-scoped table.
"""
