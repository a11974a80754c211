"""viewdns package"""
