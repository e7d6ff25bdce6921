"""SeleDental appointment scheduling engine"""
