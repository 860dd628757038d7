"""
Lambda handlers package for AWS Lambda functions.
"""
