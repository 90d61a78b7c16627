"""Domain packages (router / service / repository / schemas per domain)"""
