"""voxd.l1_drivers: speech engine port and its concrete engines."""
