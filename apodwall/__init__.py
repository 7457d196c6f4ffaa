"""apodwall - NASA Astronomy Picture of the Day as your desktop wallpaper."""
