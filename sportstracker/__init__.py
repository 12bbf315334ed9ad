"""Group fitness accountability tracker."""
