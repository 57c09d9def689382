"""Test configuration for the gateway proxy tests."""
import os
import sys

# Add application root (and this directory, for the fakes module) to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(os.path.dirname(os.path.abspath(__file__)))
